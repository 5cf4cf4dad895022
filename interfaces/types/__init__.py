# ==================================
# 📁 interfaces/types/__init__.py
# ==================================
