"""JSON response handling for API payloads."""

from __future__ import annotations

import datetime
import json
import uuid
from decimal import Decimal
from typing import Any

from fastapi.responses import JSONResponse


class ArisJSONEncoder(json.JSONEncoder):
  """Encode Decimal cost columns, UUID keys and timestamps coming straight from ORM rows."""

  def default(self, obj: Any) -> Any:
    if isinstance(obj, Decimal):
      return int(obj) if obj % 1 == 0 else float(obj)
    if isinstance(obj, uuid.UUID):
      return str(obj)
    if isinstance(obj, datetime.datetime | datetime.date):
      return obj.isoformat()
    return super().default(obj)


class ArisJSONResponse(JSONResponse):
  """JSONResponse that uses ArisJSONEncoder and compact separators."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":"), cls=ArisJSONEncoder).encode("utf-8")
