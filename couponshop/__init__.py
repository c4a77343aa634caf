"""Coupon validation and redemption for the shop bot"""
