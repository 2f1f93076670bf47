# =============================================================================
# SMSGuard: Hybrid SMS Spam Detection with Alerting
# =============================================================================
#
# SMSGuard classifies incoming text messages as spam or ham, stores the
# verdicts locally, and pushes an alert to Telegram whenever spam shows up.
#
# Features:
#   - Deterministic linguistic scorer (works fully offline)
#   - Optional Gemini second opinion for inconclusive messages
#   - Keyword fallback when the AI is unreachable
#   - SQLite storage via aiosqlite
#   - Offline notification queue with bounded retries
#   - XDG Base Directory compliant configuration
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "smsguard"

from smsguard.app import SpamGuard

__all__ = ["SpamGuard", "__version__", "__app_name__"]
