"""
Kalustovahti API Service
Authentication and page-level access control for the fleet back office
"""
