"""Stancastle booking core"""
