"""Lesson booking API: lesson catalogue, order intake and the inventory ledger."""
