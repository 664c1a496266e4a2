"""Payroll run and employee models."""
