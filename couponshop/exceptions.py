class CouponError(Exception):
    """Base class for coupon management faults"""

class CouponNotFoundError(CouponError):
    pass

class DuplicateCouponError(CouponError):
    pass

class InvalidCouponError(CouponError):
    pass
