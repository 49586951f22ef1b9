"""Metric store, job registrar, flush driver and senders"""
