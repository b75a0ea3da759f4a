"""GraphQL documents sent to the Jobber API."""

GET_JOB = """
query GetJob($id: ID!) {
  job(id: $id) {
    id
    title
    description
    status
    startAt
    endAt
    createdAt
    updatedAt
    client {
      id
      name
      email
      phone
      totalRevenue
      jobCount
    }
    assignedTo {
      id
      name
      email
    }
    property {
      id
      address {
        street1
        street2
        city
        province
        postalCode
        country
      }
    }
    total
  }
}
"""

GET_CLIENT = """
query GetClient($id: ID!) {
  client(id: $id) {
    id
    name
    email
    phone
    companyName
    isCompany
    tags
    createdAt
    totalRevenue
    jobCount
  }
}
"""

GET_QUOTE = """
query GetQuote($id: ID!) {
  quote(id: $id) {
    id
    number
    title
    status
    total
    createdAt
    expiresAt
    client {
      id
      name
      email
    }
  }
}
"""

GET_INVOICE = """
query GetInvoice($id: ID!) {
  invoice(id: $id) {
    id
    number
    subject
    status
    total
    balance
    createdAt
    dueAt
    client {
      id
      name
      email
    }
    job {
      id
      title
    }
  }
}
"""

GET_USERS = """
query GetUsers {
  users(first: 100) {
    nodes {
      id
      name
      email
      role
      isActive
    }
  }
}
"""

ASSIGN_JOB = """
mutation AssignJob($jobId: ID!, $userId: ID!) {
  jobAssign(jobId: $jobId, userId: $userId) {
    job {
      id
      assignedTo {
        id
        name
      }
    }
    success
    errors
  }
}
"""

HEALTH_CHECK = """
query HealthCheck {
  users(first: 1) {
    nodes {
      id
    }
  }
}
"""
