"""Module entry point for python -m rental_shop."""

from __future__ import annotations

from rental_shop.app import main


if __name__ == "__main__":
    raise SystemExit(main())
