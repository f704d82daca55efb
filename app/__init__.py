"""Demo HTTP service: handlers, background task and server wiring"""
