"""Operation registry and per-call pagination options.

Remote procedures are addressed by dotted ``namespace.procedure`` names.
The registry below is an explicit table of the procedures known to the
public Warera API and whether they return ``{items, nextCursor}`` pages.
It is informative rather than exhaustive: unknown names are forwarded
as long as they are well formed.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from warera_client.cursor import coerce_instant
from warera_client.exceptions import InvalidOperationError

AUTO_PAGINATE = "autoPaginate"
MAX_PAGES = "maxPages"
CURSOR_END = "cursorEnd"
PAGINATION_FIELDS = (AUTO_PAGINATE, MAX_PAGES, CURSOR_END)

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)+$")


@dataclass(frozen=True)
class OperationInfo:
    """A known remote procedure."""

    name: str
    paginated: bool = False

    @property
    def namespace(self) -> str:
        return self.name.rpartition(".")[0]

    @property
    def procedure(self) -> str:
        return self.name.rpartition(".")[2]


@dataclass(frozen=True)
class PaginationOptions:
    """Pagination fields extracted from a call input."""

    auto_paginate: bool = False
    max_pages: int | None = None
    cursor_end: datetime | None = None


def _ops(*names: str, paginated: bool = False) -> list[OperationInfo]:
    return [OperationInfo(name, paginated=paginated) for name in names]


OPERATIONS: dict[str, OperationInfo] = {
    info.name: info
    for info in [
        *_ops(
            "article.getArticlesPaginated",
            "battle.getBattles",
            "company.getCompanies",
            "event.getEventsPaginated",
            "mu.getManyPaginated",
            "transaction.getPaginatedTransactions",
            "user.getUsersByCountry",
            "workOffer.getWorkOffersPaginated",
            paginated=True,
        ),
        *_ops(
            "article.getArticleById",
            "article.getArticleLiteById",
            "battle.getById",
            "battle.getLiveBattleData",
            "battleRanking.getRanking",
            "company.getById",
            "country.getAllCountries",
            "country.getCountryById",
            "gameConfig.getDates",
            "gameConfig.getGameConfig",
            "government.getByCountryId",
            "itemOffer.getById",
            "itemTrading.getPrices",
            "mu.getById",
            "ranking.getRanking",
            "region.getById",
            "region.getRegionsObject",
            "round.getById",
            "round.getLastHits",
            "search.searchAnything",
            "tradingOrder.getTopOrders",
            "upgrade.getUpgradeByTypeAndEntity",
            "user.getUserLite",
            "workOffer.getById",
            "workOffer.getWorkOfferByCompanyId",
            "worker.getTotalWorkersCount",
            "worker.getWorkers",
        ),
    ]
}


def validate_operation_name(name: str) -> str:
    """Check that ``name`` is a dotted identifier path.

    Raises:
        InvalidOperationError: If the name is malformed
    """
    if not isinstance(name, str) or not _NAME_RE.match(name):
        raise InvalidOperationError(f"Invalid operation name: {name!r}")
    return name


def get_operation(name: str) -> OperationInfo | None:
    """Look up a known operation (None if not in the registry)."""
    return OPERATIONS.get(name)


def is_paginated(name: str) -> bool | None:
    """Whether an operation is paginated (None if unknown)."""
    info = OPERATIONS.get(name)
    return info.paginated if info else None


def wants_auto_pagination(input: Mapping[str, Any] | None) -> bool:
    """True only for an explicit ``autoPaginate: True``."""
    return input is not None and input.get(AUTO_PAGINATE) is True


def split_pagination_options(
    input: Mapping[str, Any],
) -> tuple[dict[str, Any], PaginationOptions]:
    """Separate pagination fields from the operation input.

    The remaining fields keep their values and relative order.

    Raises:
        ValueError: If maxPages or cursorEnd have unusable values
    """
    cleaned = {key: value for key, value in input.items() if key not in PAGINATION_FIELDS}

    cursor_end: datetime | date | str | None = input.get(CURSOR_END)
    options = PaginationOptions(
        auto_paginate=input.get(AUTO_PAGINATE) is True,
        max_pages=_page_limit(input.get(MAX_PAGES)),
        cursor_end=coerce_instant(cursor_end),
    )
    return cleaned, options


def _page_limit(value: Any) -> int | None:
    """Normalize a ``maxPages`` number to a whole page count.

    JSON input may carry ``2.0``. A fractional limit is rounded up, the
    same pages a ``page_count >= max_pages`` check would allow.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"{MAX_PAGES} must be a number, got {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{MAX_PAGES} must be finite, got {value!r}")
        return math.ceil(value)
    return value
