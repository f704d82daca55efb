"""Push (OTLP) and pull (Prometheus) metric exporters"""
