"""Coupon and usage models"""
