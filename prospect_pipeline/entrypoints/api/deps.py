# prospect_pipeline/entrypoints/api/deps.py
from __future__ import annotations

from fastapi import Request

from ...bootstrap import Services


def get_services(request: Request) -> Services:
    return request.app.state.services
