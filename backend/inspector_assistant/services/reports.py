"""
Job report references.

Report rendering is handled elsewhere; this module only mints the opaque
reference and URL that the completed-job notification points at.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from uuid import uuid4

from .. import config


def generate_job_report(contract_id: int) -> Dict[str, Any]:
    """Return {report_id, report_url, contract_id, generated_at} for a completed contract."""
    report_id = str(uuid4())
    return {
        "report_id": report_id,
        "report_url": f"{config.reports_base_url()}/{report_id}",
        "contract_id": contract_id,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
