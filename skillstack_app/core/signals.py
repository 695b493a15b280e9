"""
Central Signal Registry for the reward engine.

Uses blinker namespaces so the ledger, streak and settings layers can
notify each other without importing one another.

Usage:
    # Publisher (sender)
    from skillstack_app.core.signals import ledger_committed
    ledger_committed.send(None, user_id='u1', event_id='e1', ...)

    # Subscriber (receiver) - in module's events.py
    @ledger_committed.connect
    def on_ledger_committed(sender, **kwargs):
        ...
"""
from blinker import Namespace

experience_signals = Namespace()

# Signal: Fired after a learning event and its aggregates are committed
# Payload: user_id, event_id, kind, xp_earned, skp_earned, activity_date
ledger_committed = experience_signals.signal('ledger_committed')

# Signal: Fired when the streak engine pays out a streak bonus
# Payload: user_id, streak_days, amount, source
streak_bonus_awarded = experience_signals.signal('streak_bonus_awarded')

# Signal: Fired when an audit finds the ledger and aggregates disagree
# Payload: user_id, report (dict)
invariant_violated = experience_signals.signal('invariant_violated')

# ============================================
# Settings Signals
# ============================================
settings_signals = Namespace()

# Signal: Fired after an admin changes a reward setting
# Payload: category, key, value
reward_settings_changed = settings_signals.signal('reward_settings_changed')
