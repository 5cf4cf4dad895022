# ============================
# 📁 core/__init__.py
# ============================
