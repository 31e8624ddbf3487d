"""
Admissions Module

Handles the membership admission workflow:
1. Application intake with conditional volunteer validation and dedup
2. Admin review through a fixed status transition table
3. Access codes minted on approval, validated and consumed at registration
4. Background jobs enforcing the retention policy

API Endpoints:
- POST /applications - Submit an application
- POST /applications/access-codes/validate - Check an access code
- /admin/applications/... - Admin list, stats, detail and review actions

Background Jobs (via APScheduler):
- run_retention_sweep: Daily purge of old codes and applications
- purge_redeemed_records: Every minute, removes records of redeemed codes
"""

from .jobs import register_admission_jobs
from .router import router

__all__ = ["router", "register_admission_jobs"]
