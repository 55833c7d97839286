ABSTRACT = "ABSTRACT"
"""
Set as __collection_name__ on Document classes which map to no collection, such as shared base classes.
Using such a class for queries raises a SetupError.
"""
