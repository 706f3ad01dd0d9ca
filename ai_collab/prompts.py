"""Default prompt templates. settings.yaml may override any of them.

Templates use str.format placeholders; each constant lists the names it needs.
"""

# {prompt} {continuation} {context}
SEQUENTIAL_FIRST_CONTINUATION = """{prompt}

{continuation}

Previous context:
{context}"""

# {continuation} {context}
SEQUENTIAL_CONTINUATION = """{continuation}

Context so far:
{context}

Please provide the next iteration or improvement."""

DEFAULT_CONTINUATION = "Based on the previous response, please continue and improve upon the answer:"

# {prompt} {conflict_summary}
CONSENSUS_RESOLUTION = """{prompt}

Previous responses showed some disagreement. Here's a summary of the conflict areas:
{conflict_summary}

Please provide a response that addresses these conflicts and aims for a more unified answer."""

# {prompt} {response}
ITERATIVE_REVIEW = """Please review the following response to the original question and provide constructive feedback:

Original Question: {prompt}

Response to Review:
{response}

Please provide:
1. Overall assessment of the response quality
2. Specific areas for improvement
3. Concrete suggestions for enhancement
4. Any missing information or perspectives

Focus on being constructive and specific in your feedback."""

DEFAULT_IMPROVE_HEADER = "Please improve the following response based on the feedback provided:"

# {header} {prompt} {response} {reviews}
ITERATIVE_IMPROVE = """{header}

Original Question: {prompt}

Your Previous Response:
{response}

Feedback from Reviewers:
{reviews}

Please provide an improved response that addresses the feedback while maintaining the strengths of your original answer."""

# {prompt} {previous} {suggestions}
ITERATIVE_NEXT = """{prompt}

Previous iteration context:
{previous}

Key areas for further improvement:
{suggestions}

Please provide an enhanced response that builds upon the previous work while addressing the remaining improvement areas."""

SYNTHESIS_HEADERS = {
    "consensus": (
        "You are tasked with creating a consensus synthesis from multiple AI responses. "
        "Focus on finding common ground and addressing discrepancies."
    ),
    "weighted_merge": (
        "You are tasked with merging multiple responses based on their quality weights. "
        "Higher-weighted responses should have more influence on the final synthesis."
    ),
    "best_of": (
        "You are tasked with enhancing the best response with complementary elements from other responses. "
        "Maintain the quality of the best response while adding valuable insights."
    ),
    "comprehensive": (
        "You are tasked with creating a comprehensive synthesis that covers all important aspects "
        "from the provided responses. Ensure completeness and accuracy."
    ),
    "extractive": (
        "You are tasked with extracting and combining the most important sentences and phrases "
        "from the provided responses."
    ),
    "abstractive": (
        "You are tasked with creating an abstractive synthesis that captures the essence of the "
        "provided responses in new, concise language."
    ),
}
