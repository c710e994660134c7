"""
Activity trail for payroll operations.

Every committed mutation (attendance marks, payslip request transitions, releases, permission
toggles) is appended to a JSONL file. Writes happen after the database commit and never raise:
a broken trail must not undo or block a financial transaction.
"""
import json
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional
from datetime import datetime

from salonpay.core.config import settings

logger = logging.getLogger(__name__)

class AuditLogger:
    """Append-only JSONL activity log."""

    def __init__(self, log_dir: Optional[str] = None):
        self.audit_dir = Path(log_dir or settings.AUDIT_LOG_PATH)
        self.changes_log = self.audit_dir / "payroll_changes.jsonl"

    def log_change(
        self,
        entity_type: str,
        operation: str,
        entity_id: str,
        changes: Dict[str, Any],
        actor_id: Optional[str] = None
    ) -> bool:
        """Record one committed change. Returns False if the entry could not be written."""

        log_entry = {
            'timestamp': datetime.now().isoformat(),
            'entity_type': entity_type,
            'operation': operation,
            'entity_id': entity_id,
            'changes': changes,
            'actor_id': actor_id
        }

        try:
            self.audit_dir.mkdir(parents=True, exist_ok=True)
            with open(self.changes_log, 'a', encoding='utf-8') as f:
                f.write(json.dumps(log_entry, default=str) + '\n')
        except OSError as e:
            logger.warning("activity trail write failed for %s %s: %s", entity_type, entity_id, e)
            return False
        return True

    def get_change_history(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        """Get change history for specific entity, newest first."""
        if not self.changes_log.exists():
            return []

        changes = []
        with open(self.changes_log, 'r', encoding='utf-8') as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue
                if (entry.get('entity_type') == entity_type and
                        entry.get('entity_id') == entity_id):
                    changes.append(entry)

        changes.sort(key=lambda x: x['timestamp'], reverse=True)
        return changes
