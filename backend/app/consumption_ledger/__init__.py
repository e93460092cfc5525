from app.consumption_ledger.service import ConsumptionLedger, EntryOutcome, SubmissionResult

__all__ = ["ConsumptionLedger", "EntryOutcome", "SubmissionResult"]
