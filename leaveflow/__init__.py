"""Leaveflow — multi-stage leave approval workflow (HOD → HR → GED)."""
