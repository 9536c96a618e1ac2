from datetime import date

import pandas as pd
import pytest

from core.filters import UserContext
from core.visits import Visit

# Thursday; June 2025 starts on a Sunday.
TODAY = date(2025, 6, 19)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def lead():
    return UserContext(role="lead", name="Manager", region="All Regions")


@pytest.fixture
def rep():
    return UserContext(role="dpc", name="Salamone, D", region="SDC 1")


@pytest.fixture
def other_rep():
    return UserContext(role="dpc", name="Gillman, T", region="PHL 1")


@pytest.fixture
def roster():
    return pd.DataFrame(
        [
            {"name": "Salamone, D", "region": "SDC 1", "target": 20},
            {"name": "Manno, D", "region": "SDC 2", "target": 20},
            {"name": "Gillman, T", "region": "PHL 1", "target": 20},
        ]
    )


@pytest.fixture
def retailers():
    return pd.DataFrame(
        [
            {"code": "403872", "name": "Mid-Hudson Subaru", "city": "Wappingers Falls", "state": "NY"},
            {"code": "20226", "name": "Brewster Subaru", "city": "Brewster", "state": "NY"},
            {"code": "20211", "name": "Koeppel Subaru", "city": "Long Island City", "state": "NY"},
            {"code": "20273", "name": "Lynnes Subaru", "city": "Bloomfield", "state": "NJ"},
            {"code": "20235", "name": "Open Road Subaru", "city": "Union", "state": "NJ"},
        ]
    )


@pytest.fixture
def make_visit():
    counter = {"id": 100}

    def _make(dpc="Salamone, D", visit_date="2025-06-16", visit_type="On-Site Retailer", received="", **extra):
        counter["id"] += 1
        region = {"Salamone, D": "SDC 1", "Manno, D": "SDC 2", "Gillman, T": "PHL 1"}.get(dpc, "")
        data = {
            "id": counter["id"],
            "dpc": dpc,
            "region": region,
            "created_by": dpc,
            "date": visit_date,
            "visit_type": visit_type,
            "received_date": received,
            "approved": bool(received),
        }
        data.update(extra)
        return Visit.from_dict(data)

    return _make


@pytest.fixture
def june_visits(make_visit):
    """Five June visits for Salamone (three received), plus visits for other reps and months."""
    return [
        make_visit(visit_date="2025-06-02", received="2025-06-03"),
        make_visit(visit_date="2025-06-03", visit_type="Virtual", received="2025-06-04"),
        make_visit(visit_date="2025-06-04", visit_type="Training/T3", received="2025-06-05"),
        make_visit(visit_date="2025-06-05", visit_type="Office"),
        make_visit(visit_date="2025-06-16", visit_type="On-Site Corporate"),
        make_visit(dpc="Gillman, T", visit_date="2025-06-10", received="2025-06-11"),
        make_visit(dpc="Manno, D", visit_date="2025-05-12", visit_type="Onsite Zone", received="2025-05-13"),
        make_visit(dpc="Manno, D", visit_date="2025-03-03"),
    ]
