"""
Container Stats Storage Module

InfluxDB storage driver for container statistics.
"""
