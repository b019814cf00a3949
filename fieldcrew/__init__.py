"""Field crew scheduling API"""
