"""Metrics context, instrument definitions and export pipelines"""
