"""Certification voucher request service."""
