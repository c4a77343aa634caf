"""Coupon services"""
