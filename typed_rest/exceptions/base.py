class TypedRestException(Exception):
    pass
