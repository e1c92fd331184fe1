from __future__ import annotations

import pytest

from oauth21.core.settings import (
    DeviceFlowSettings,
    MetadataSettings,
    OAuthSettings,
    PkceSettings,
)
from oauth21.testing import ADMIN_CLIENT_ID, ISSUER
from oauth21.testing.utils import ClientFactory


@pytest.fixture
def client_factory() -> ClientFactory:
    return ClientFactory(
        [
            OAuthSettings(
                issuer=ISSUER,
                revocation_bypass_client_ids={ADMIN_CLIENT_ID},
            ),
            PkceSettings(),
            DeviceFlowSettings(),
            MetadataSettings(),
        ]
    )
