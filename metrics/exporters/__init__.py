"""Graphite wire senders"""
