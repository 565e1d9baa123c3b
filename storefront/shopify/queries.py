"""GraphQL documents for the Shopify Storefront and Admin APIs."""

CART_FIELDS = """
  id
  checkoutUrl
  totalQuantity
  cost {
    totalAmount { amount currencyCode }
    subtotalAmount { amount currencyCode }
  }
  lines(first: 100) {
    edges {
      node {
        id
        quantity
        merchandise {
          ... on ProductVariant {
            id
            title
            price { amount currencyCode }
            product {
              title
              handle
              featuredImage { url altText }
            }
          }
        }
      }
    }
  }
"""

USER_ERRORS = "userErrors { field message }"

CREATE_CART_MUTATION = f"""
mutation cartCreate($input: CartInput!) {{
  cartCreate(input: $input) {{
    cart {{ {CART_FIELDS} }}
    {USER_ERRORS}
  }}
}}
"""

ADD_TO_CART_MUTATION = f"""
mutation cartLinesAdd($cartId: ID!, $lines: [CartLineInput!]!) {{
  cartLinesAdd(cartId: $cartId, lines: $lines) {{
    cart {{ {CART_FIELDS} }}
    {USER_ERRORS}
  }}
}}
"""

UPDATE_CART_MUTATION = f"""
mutation cartLinesUpdate($cartId: ID!, $lines: [CartLineUpdateInput!]!) {{
  cartLinesUpdate(cartId: $cartId, lines: $lines) {{
    cart {{ {CART_FIELDS} }}
    {USER_ERRORS}
  }}
}}
"""

REMOVE_FROM_CART_MUTATION = f"""
mutation cartLinesRemove($cartId: ID!, $lineIds: [ID!]!) {{
  cartLinesRemove(cartId: $cartId, lineIds: $lineIds) {{
    cart {{ {CART_FIELDS} }}
    {USER_ERRORS}
  }}
}}
"""

GET_CART_QUERY = f"""
query getCart($cartId: ID!) {{
  cart(id: $cartId) {{ {CART_FIELDS} }}
}}
"""

RECIPE_PRODUCTS_QUERY = """
{
  products(first: 100) {
    edges {
      node {
        handle
        title
        productType
        description
        variants(first: 1) {
          edges { node { availableForSale } }
        }
      }
    }
  }
}
"""

COMPANY_CREATE_MUTATION = """
mutation companyCreate($input: CompanyCreateInput!) {
  companyCreate(input: $input) {
    company { id name }
    userErrors { field message }
  }
}
"""
