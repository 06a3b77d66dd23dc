# Point the service at the example route table before any edge_router module
# reads its configuration from the environment.
import os

import pytest

SERVICE_ROOT = os.path.dirname(__file__)
os.environ.setdefault(
    "ROUTE_TABLE_FILE", os.path.join(SERVICE_ROOT, "config", "routes.example.json")
)

from edge_router.routing.route_table import RouteTable  # noqa: E402
from edge_router.utils_tests.mock_origins import MockOrigins  # noqa: E402

API_HOST = "api.example.dev"
ADM_HOST = "adm.pages.dev"
PACIENTE_HOST = "paciente.pages.dev"


@pytest.fixture
def route_table():
    return RouteTable.model_validate(
        {
            "api_origin": API_HOST,
            "default_route": "/administracao",
            "routes": [
                {"prefix": "/administracao", "target_origin": ADM_HOST},
                {"prefix": "/paciente", "target_origin": PACIENTE_HOST},
            ],
        }
    )


@pytest.fixture
def origins():
    return MockOrigins()
