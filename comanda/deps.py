from __future__ import annotations

from functools import lru_cache

from comanda.services.dispatcher import Dispatcher


@lru_cache(maxsize=1)
def get_dispatcher() -> Dispatcher:
    """Un dispatcher por proceso: el cache de canales, el rate limiter y los locks viven acá."""
    return Dispatcher()
