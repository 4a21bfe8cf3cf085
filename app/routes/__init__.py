from flask import jsonify


def form_error_response(form):
    """400 response listing the validation errors of a submitted form"""
    return (
        jsonify(
            {
                "error": "validation_error",
                "message": "Invalid request data",
                "fields": form.errors,
            }
        ),
        400,
    )
