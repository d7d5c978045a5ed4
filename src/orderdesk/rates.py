"""Reference shipping rate table: governorate -> city -> fee."""

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any

from .config import CURRENCY, RATES_FILE
from .errors import InvalidRateTableError
from .money import parse_price

logger = logging.getLogger(__name__)

BUNDLED_RATES_FILE = Path(__file__).parent / "data" / "shipping_rates.json"


class RateTable:
    """
    Read-only lookup of per-city shipping fees.

    City names are matched exactly (case-sensitive, no trimming); a miss
    returns None and the caller decides the fallback.
    """

    def __init__(self, rates: dict[str, dict[str, Decimal]], currency: str = CURRENCY):
        self._rates = {
            gov: {city: parse_price(fee) for city, fee in cities.items()}
            for gov, cities in rates.items()
        }
        self.currency = currency

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateTable":
        return cls(data.get("governorates", {}), currency=data.get("currency", CURRENCY))

    @classmethod
    def load(cls, path: Path | str | None = None) -> "RateTable":
        """
        Load a rate table from a JSON file.

        Args:
            path: File to read. Defaults to ORDERDESK_RATES_FILE, then the
                bundled Egyptian governorate table.

        Raises:
            InvalidRateTableError: If the file is missing or malformed.
        """
        rates_path = Path(path or RATES_FILE or BUNDLED_RATES_FILE)
        try:
            with open(rates_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise InvalidRateTableError(str(rates_path), "file not found")
        except json.JSONDecodeError as e:
            raise InvalidRateTableError(str(rates_path), f"invalid JSON ({e})")

        governorates = data.get("governorates") if isinstance(data, dict) else None
        if not isinstance(governorates, dict):
            raise InvalidRateTableError(str(rates_path), "missing 'governorates' mapping")
        for name, cities in governorates.items():
            if not isinstance(cities, dict):
                raise InvalidRateTableError(
                    str(rates_path), f"governorate {name!r} must map city names to fees"
                )

        table = cls.from_dict(data)
        logger.debug(
            "Loaded %d governorates from %s", len(table.governorate_names()), rates_path
        )
        return table

    def fee_for(self, governorate: str, city: str) -> Decimal | None:
        """Return the configured fee for a city, or None if it isn't listed."""
        cities = self._rates.get(governorate)
        if cities is None:
            return None
        return cities.get(city)

    def governorate_names(self) -> list[str]:
        return list(self._rates)

    def city_names(self, governorate: str) -> list[str]:
        """City names for a governorate in table order ([] if unknown)."""
        return list(self._rates.get(governorate, {}))

    def to_dict(self) -> dict[str, Any]:
        return {
            "currency": self.currency,
            "governorates": {
                gov: {city: format(fee, "f") for city, fee in cities.items()}
                for gov, cities in self._rates.items()
            },
        }
