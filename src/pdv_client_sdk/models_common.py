from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

# Money goes over the wire as JSON numbers; the services are not Decimal-aware.
WireDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
