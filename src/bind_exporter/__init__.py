"""Prometheus exporter for BIND statistics channels"""
