PRODUCT_QUERY = "query($id: Int!) { product(id: $id) { id name description price } }"
INVENTORIES_QUERY = """
query($productId: Int!) {
  inventories(productId: $productId) {
    id
    quantity
    product { id name }
    warehouse { name location }
  }
}
"""
CREATE_MUTATION = """
mutation($name: String!, $description: String, $price: Float) {
  createProduct(name: $name, description: $description, price: $price) {
    id name description price
  }
}
"""

def gql(client, query, **variables):
    resp = client.post('/graphql', json={"query": query, "variables": variables})
    assert resp.status_code == 200
    return resp.json()

def test_create_product_mutation(client):
    body = gql(client, CREATE_MUTATION, name="Widget", description="d", price=9.99)
    created = body["data"]["createProduct"]
    assert created["id"] is not None
    assert created["name"] == "Widget"
    assert created["description"] == "d"
    assert created["price"] == 9.99

def test_product_query_matches_rest(client):
    created = client.post('/api/products', json={"name": "Pump", "description": "Water pump", "price": 49.5}).json()
    body = gql(client, PRODUCT_QUERY, id=created["id"])
    assert "errors" not in body
    assert body["data"]["product"] == created

def test_unknown_product_is_a_field_error(client):
    body = gql(client, PRODUCT_QUERY, id=999)
    assert body["data"] == {"product": None}
    assert body["errors"][0]["message"] == "Product not found"
    assert body["errors"][0]["path"] == ["product"]

def test_inventories_for_product(client, stocked_product):
    body = gql(client, INVENTORIES_QUERY, productId=stocked_product.id)
    rows = body["data"]["inventories"]
    assert [r["quantity"] for r in rows] == [7, 3]
    assert {r["warehouse"]["name"] for r in rows} == {"North", "South"}
    assert all(r["product"]["id"] == stocked_product.id for r in rows)

def test_inventories_empty_is_not_an_error(client):
    created = client.post('/api/products', json={"name": "Lonely"}).json()
    body = gql(client, INVENTORIES_QUERY, productId=created["id"])
    assert "errors" not in body
    assert body["data"]["inventories"] == []

def test_no_update_or_delete_mutations(client):
    resp = client.post('/graphql', json={"query": "mutation { deleteProduct(id: 1) }"})
    body = resp.json()
    assert body.get("data") is None
    assert "deleteProduct" in body["errors"][0]["message"]
