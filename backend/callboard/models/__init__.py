"""Pydantic models shared by services and routers."""
