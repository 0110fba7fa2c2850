"""Platform helpers: trials and coupons, workspace access control."""
