"""ARIA assessment wizard: step data sync core and assessment service.

Client-side synchronization (safe local storage, the legacy migration
sweep, per-step synchronizers and the assessment session) lives in
`aria/logic/`. The FastAPI assessment service that backs the remote step
store is built by `create_app`; route handlers live in `aria/routes/`.
"""

from __future__ import annotations

from aria.main import create_app

__all__ = ["create_app"]
