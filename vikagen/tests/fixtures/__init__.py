"""Test fixtures for vikagen tests.

This module provides sample OpenAPI documents covering the shapes the code
generation core has to handle: plain objects, recursion, shared schemas,
discriminated unions and duplicated enums.
"""


def ref(name: str) -> dict:
    return {'$ref': f'#/components/schemas/{name}'}


def json_response(schema: dict, description: str = 'OK') -> dict:
    return {'description': description, 'content': {'application/json': {'schema': schema}}}


# Minimal OpenAPI 3.0 document without operations
MINIMAL_OPENAPI_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Minimal API', 'version': '1.0.0'},
    'paths': {},
}

# Classic petstore: one tag, query/path parameters, a body and error responses
PETSTORE_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Petstore', 'version': '1.0.0'},
    'tags': [{'name': 'pets', 'description': 'Everything about pets'}],
    'paths': {
        '/pets': {
            'get': {
                'operationId': 'listPets',
                'summary': 'List all pets',
                'tags': ['pets'],
                'parameters': [
                    {
                        'name': 'limit',
                        'in': 'query',
                        'description': 'How many items to return',
                        'required': False,
                        'schema': {'type': 'integer', 'format': 'int32'},
                    },
                    {
                        'name': 'status',
                        'in': 'query',
                        'schema': {
                            'type': 'string',
                            'enum': ['available', 'pending', 'sold'],
                        },
                    },
                ],
                'responses': {
                    '200': json_response(
                        {'type': 'array', 'items': ref('Pet')}, 'A list of pets'
                    ),
                    'default': json_response(ref('Error'), 'Unexpected error'),
                },
            },
            'post': {
                'operationId': 'createPet',
                'summary': 'Create a pet',
                'tags': ['pets'],
                'requestBody': {
                    'required': True,
                    'content': {'application/json': {'schema': ref('NewPet')}},
                },
                'responses': {
                    '201': json_response(ref('Pet'), 'Pet created'),
                    'default': json_response(ref('Error'), 'Unexpected error'),
                },
            },
        },
        '/pets/{petId}': {
            'get': {
                'operationId': 'showPetById',
                'summary': 'Info for a specific pet',
                'tags': ['pets'],
                'parameters': [
                    {
                        'name': 'petId',
                        'in': 'path',
                        'required': True,
                        'description': 'The id of the pet to retrieve',
                        'schema': {'type': 'string'},
                    }
                ],
                'responses': {
                    '200': json_response(ref('Pet'), 'Expected response'),
                    '404': {'description': 'Pet not found'},
                    'default': json_response(ref('Error'), 'Unexpected error'),
                },
            },
        },
    },
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'required': ['id', 'name'],
                'properties': {
                    'id': {'type': 'integer', 'format': 'int64'},
                    'name': {'type': 'string'},
                    'tag': {'type': 'string', 'nullable': True},
                    'status': {
                        'type': 'string',
                        'enum': ['available', 'pending', 'sold'],
                    },
                },
            },
            'NewPet': {
                'type': 'object',
                'required': ['name'],
                'properties': {
                    'name': {'type': 'string'},
                    'tag': {'type': 'string'},
                },
            },
            'Error': {
                'type': 'object',
                'required': ['code', 'message'],
                'properties': {
                    'code': {'type': 'integer', 'format': 'int32'},
                    'message': {'type': 'string'},
                },
            },
        }
    },
}

# A self-referencing tree
RECURSIVE_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Tree API', 'version': '1.0.0'},
    'paths': {
        '/tree': {
            'get': {
                'operationId': 'getTree',
                'tags': ['tree'],
                'responses': {'200': json_response(ref('Node'))},
            }
        }
    },
    'components': {
        'schemas': {
            'Node': {
                'type': 'object',
                'required': ['id'],
                'properties': {
                    'id': {'type': 'string'},
                    'children': {'type': 'array', 'items': ref('Node')},
                },
            }
        }
    },
}

# Two schemas referencing each other
MUTUAL_RECURSION_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Org API', 'version': '1.0.0'},
    'paths': {
        '/employees/{id}': {
            'get': {
                'operationId': 'getEmployee',
                'tags': ['org'],
                'parameters': [
                    {'name': 'id', 'in': 'path', 'required': True, 'schema': {'type': 'string'}}
                ],
                'responses': {'200': json_response(ref('Employee'))},
            }
        }
    },
    'components': {
        'schemas': {
            'Employee': {
                'type': 'object',
                'properties': {
                    'name': {'type': 'string'},
                    'manager': ref('Manager'),
                },
            },
            'Manager': {
                'type': 'object',
                'properties': {
                    'name': {'type': 'string'},
                    'reports': {'type': 'array', 'items': ref('Employee')},
                },
            },
        }
    },
}

# Two tags sharing the Address schema
SHARED_SCHEMA_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Shop API', 'version': '2.0.0'},
    'tags': [{'name': 'users'}, {'name': 'orders'}],
    'paths': {
        '/users/{userId}': {
            'get': {
                'operationId': 'getUser',
                'tags': ['users'],
                'parameters': [
                    {
                        'name': 'userId',
                        'in': 'path',
                        'required': True,
                        'schema': {'type': 'string'},
                    }
                ],
                'responses': {'200': json_response(ref('User'))},
            }
        },
        '/orders/{orderId}': {
            'get': {
                'operationId': 'getOrder',
                'tags': ['orders'],
                'parameters': [
                    {
                        'name': 'orderId',
                        'in': 'path',
                        'required': True,
                        'schema': {'type': 'string'},
                    }
                ],
                'responses': {'200': json_response(ref('Order'))},
            }
        },
    },
    'components': {
        'schemas': {
            'User': {
                'type': 'object',
                'required': ['id'],
                'properties': {
                    'id': {'type': 'string'},
                    'address': ref('Address'),
                },
            },
            'Order': {
                'type': 'object',
                'required': ['id'],
                'properties': {
                    'id': {'type': 'string'},
                    'shippingAddress': ref('Address'),
                },
            },
            'Address': {
                'type': 'object',
                'required': ['street', 'city'],
                'properties': {
                    'street': {'type': 'string'},
                    'city': {'type': 'string'},
                },
            },
        }
    },
}

# A oneOf union tagged by a discriminator property
DISCRIMINATED_UNION_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Payments API', 'version': '1.0.0'},
    'paths': {
        '/payment-methods/{id}': {
            'get': {
                'operationId': 'getPaymentMethod',
                'tags': ['payments'],
                'parameters': [
                    {'name': 'id', 'in': 'path', 'required': True, 'schema': {'type': 'string'}}
                ],
                'responses': {'200': json_response(ref('PaymentMethod'))},
            }
        }
    },
    'components': {
        'schemas': {
            'PaymentMethod': {
                'oneOf': [ref('Card'), ref('Cash')],
                'discriminator': {'propertyName': 'type'},
            },
            'Card': {
                'type': 'object',
                'required': ['type', 'number'],
                'properties': {
                    'type': {'type': 'string', 'enum': ['card']},
                    'number': {'type': 'string'},
                },
            },
            'Cash': {
                'type': 'object',
                'required': ['type'],
                'properties': {
                    'type': {'type': 'string', 'enum': ['cash']},
                    'currency': {'type': 'string'},
                },
            },
        }
    },
}

# The same inline enum declared by schemas of two different tags
DUPLICATE_ENUM_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Store API', 'version': '1.0.0'},
    'paths': {
        '/pets/{id}': {
            'get': {
                'operationId': 'getPet',
                'tags': ['pets'],
                'responses': {'200': json_response(ref('Pet'))},
            }
        },
        '/orders/{id}': {
            'get': {
                'operationId': 'getOrder',
                'tags': ['store'],
                'responses': {'200': json_response(ref('Order'))},
            }
        },
    },
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string', 'enum': ['available', 'pending', 'sold']},
                },
            },
            'Order': {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string', 'enum': ['available', 'pending', 'sold']},
                },
            },
        }
    },
}

# An operation that only declares a default response
DEFAULT_ONLY_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Ping API', 'version': '1.0.0'},
    'paths': {
        '/ping': {
            'get': {
                'operationId': 'ping',
                'responses': {'default': json_response(ref('Status'))},
            }
        }
    },
    'components': {
        'schemas': {
            'Status': {
                'type': 'object',
                'properties': {'ok': {'type': 'boolean'}},
            }
        }
    },
}

# A component referencing a schema that does not exist
DANGLING_REF_SPEC = {
    'openapi': '3.0.0',
    'info': {'title': 'Broken API', 'version': '1.0.0'},
    'paths': {},
    'components': {
        'schemas': {
            'Pet': {
                'type': 'object',
                'properties': {'owner': ref('Owner')},
            }
        }
    },
}

# Swagger 2.0 document
SWAGGER_SPEC = {
    'swagger': '2.0',
    'info': {'title': 'Legacy API', 'version': '0.9'},
    'produces': ['application/json'],
    'paths': {
        '/pets': {
            'get': {
                'operationId': 'listPets',
                'tags': ['pets'],
                'parameters': [
                    {
                        'name': 'tags',
                        'in': 'query',
                        'type': 'array',
                        'items': {'type': 'string'},
                        'collectionFormat': 'multi',
                    }
                ],
                'responses': {
                    '200': {
                        'description': 'A list of pets',
                        'schema': {'type': 'array', 'items': {'$ref': '#/definitions/Pet'}},
                    }
                },
            },
            'post': {
                'operationId': 'addPet',
                'tags': ['pets'],
                'parameters': [
                    {
                        'name': 'pet',
                        'in': 'body',
                        'required': True,
                        'schema': {'$ref': '#/definitions/Pet'},
                    }
                ],
                'responses': {'201': {'description': 'Created'}},
            },
        }
    },
    'definitions': {
        'Pet': {
            'type': 'object',
            'required': ['name'],
            'properties': {'name': {'type': 'string'}},
        }
    },
}
