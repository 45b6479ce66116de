"""GraphQL documents sent to the GitHub API."""

GET_ORGANIZATION_PULL_REQUESTS = """
query GetOrgPullRequests($org: String!, $repositories: Int = 10, $first: Int = 20) {
  organization(login: $org) {
    login
    repositories(first: $repositories, orderBy: {field: UPDATED_AT, direction: DESC}) {
      nodes {
        name
        owner {
          login
        }
        pullRequests(first: $first, orderBy: {field: UPDATED_AT, direction: DESC}) {
          nodes {
            number
            title
            state
            createdAt
            updatedAt
            mergedAt
            closedAt
            additions
            deletions
            milestone {
              title
            }
            author {
              login
            }
            reviews(first: 50) {
              nodes {
                author {
                  login
                }
                createdAt
                state
                comments {
                  totalCount
                }
              }
            }
            comments(first: 100) {
              nodes {
                author {
                  login
                }
                createdAt
              }
            }
            timelineItems(first: 100, itemTypes: [ISSUE_COMMENT, PULL_REQUEST_REVIEW]) {
              nodes {
                __typename
                ... on IssueComment {
                  author {
                    login
                  }
                  createdAt
                }
                ... on PullRequestReview {
                  author {
                    login
                  }
                  createdAt
                }
              }
            }
            commits(first: 100) {
              nodes {
                commit {
                  committedDate
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

GET_ORGANIZATION_MEMBERS = """
query GetOrgMembers($org: String!, $first: Int = 100) {
  organization(login: $org) {
    login
    membersWithRole(first: $first) {
      nodes {
        login
        name
        email
      }
    }
    teams(first: 50) {
      nodes {
        name
        slug
        members(first: 100) {
          nodes {
            login
          }
        }
      }
    }
  }
}
"""
