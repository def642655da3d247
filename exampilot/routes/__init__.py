"""
ルーティング（Flask Blueprint）
"""
