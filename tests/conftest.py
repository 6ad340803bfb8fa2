import os
from datetime import datetime

import pytest

from pii_audit.failures import Failure, FailureClassification, FailurePart
from pii_audit.reporting import HEADER

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0)

KANSAS_ROW = "FunBooks.HappyOzz,1.2.3,Narrative,We aren't in Kansas anymore Toto,Kansas###Toto,Location###Location,13###28"


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def kansas_failure():
    return Failure(
        problem_field="Narrative",
        problem_value="We aren't in Kansas anymore Toto",
        parts=[
            FailurePart("Kansas", FailureClassification.LOCATION, 13),
            FailurePart("Toto", FailureClassification.LOCATION, 28),
        ],
        resource="FunBooks.HappyOzz",
        resource_primary_key="1.2.3",
    )


@pytest.fixture
def kansas_report(tmp_path):
    path = os.path.join(tmp_path, "failures.csv")
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(",".join(HEADER) + "\n")
        f.write(KANSAS_ROW + "\n")
    return path
