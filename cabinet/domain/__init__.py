"""Application domains"""
