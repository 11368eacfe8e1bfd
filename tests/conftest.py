import sys
from pathlib import Path

import pytest


SRC_PATH = str(Path(__file__).resolve().parents[1] / "src")

if SRC_PATH not in sys.path:
    sys.path.insert(0, SRC_PATH)


@pytest.fixture
def make_raw_record():
    def _make_raw_record(**overrides):
        record = {
            "id": "t1",
            "user_prompt": "List all customers in Berlin",
            "expected_sql": "SELECT * FROM customers WHERE city = 'Berlin'",
            "generated_sql": "SELECT * FROM customers WHERE city = 'Berlin'",
            "syntax_score": 1.0,
            "semantic_score": 0.5,
            "true_label": "pass",
        }
        record.update(overrides)
        return record

    return _make_raw_record
