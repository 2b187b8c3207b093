from __future__ import annotations

import importlib

ulid_module = importlib.import_module("ulid")


def new_submission_record_id() -> str:
    return f"sub_{ulid_module.new().str}"
