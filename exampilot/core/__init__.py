"""
コアモジュール（設定・DB・認証・採点）
"""
